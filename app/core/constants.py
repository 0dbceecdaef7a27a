"""
Application-wide constants
"""

SERVICE_NAME = "hr-lifecycle-backend"
API_V1_PREFIX = "/api/v1"

# Audit entity types
ENTITY_ROLE_ASSIGNMENT = "role_assignments"
ENTITY_LEAVE_REQUEST = "leave_requests"
ENTITY_EMPLOYEE = "employees"
