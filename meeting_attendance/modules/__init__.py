# QR Meeting Attendance - Modules Package
"""
Core business logic modules for the meeting attendance service.

- database_manager: SQLite schema and query helpers
- session_store: single active session slot per member
- auth_manager: registration, login, token checks and roles
- meeting_manager: meetings, scan codes and geofences
- attendance_manager: scan eligibility and attendance records
- member_manager: admin member management
- qr_generator: scan code generation and QR images
- report_generator: CSV and Excel attendance export
- geolocation: distance and client location helpers
- errors: rejection taxonomy and HTTP mapping
"""
