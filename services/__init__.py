from config import get_settings
from services.attendance import AttendanceService
from services.dashboard import DashboardService
from services.leaves import LeaveService
from services.notifications import ConnectionRegistry, NotificationDispatcher
from services.timesheets import TimesheetService

# Shared instances, one per process
connection_registry = ConnectionRegistry()
dispatcher = NotificationDispatcher(connection_registry)

attendance_service = AttendanceService(dispatcher, get_settings())
timesheet_service = TimesheetService(dispatcher)
leave_service = LeaveService(dispatcher)
dashboard_service = DashboardService(get_settings(), connection_registry)
