"""
Accounts app - users, companies and company staff.

This app provides:
- User: Custom user model (email login, public_id)
- UserRole: Role held by a user, with its permission codes
- Company: Client organisation
- CompanyMembership: Binds a staff user to their company
- ActorContext: Authorization context utilities
- commands / queries: The aggregate services behind the HTTP API
"""
