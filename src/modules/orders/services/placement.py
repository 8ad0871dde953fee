from typing import Dict, Tuple

from modules.orders.models.user import UserRole

Coordinates = Tuple[float, float]

# Posición de la firma en la primera página (unidades PDF, origen abajo a la izquierda)
SIGNATURE_PLACEMENTS: Dict[UserRole, Coordinates] = {
    UserRole.DIRECTOR: (400, 100),
    UserRole.SECRETARY: (400, 200),
    UserRole.RESPONSIBLE: (400, 300),
}
FALLBACK_PLACEMENT: Coordinates = (400, 400)


def placement_for(role: UserRole) -> Coordinates:
    return SIGNATURE_PLACEMENTS.get(role, FALLBACK_PLACEMENT)
