from modules.orders.models.user import UserRole

ROLE_PERMISSIONS = {
    UserRole.STAFF: ["create"],
    UserRole.DIRECTOR: ["sign", "reject", "delete"],
    UserRole.SECRETARY: ["sign"],
    UserRole.RESPONSIBLE: ["sign"],
}


def can_perform_action(user_role: UserRole, action: str) -> bool:
    return action in ROLE_PERMISSIONS.get(user_role, [])
