from gatehouse.gateways.base import APPROVAL_FOOTER, POLL_OPTIONS
from gatehouse.schemas.visitor import VisitorRequest
from gatehouse.services.address_service import AddressNormalizer


def resident_room(canonical_address: str) -> str:
    return f"resident:{canonical_address}"


class SocketGateway:
    """Delivers messages to residents connected to the Socket.IO resident namespace."""

    def __init__(self, sio, namespace: str, normalizer: AddressNormalizer):
        self.sio = sio
        self.namespace = namespace
        self.normalizer = normalizer

    async def send_text(self, address: str, text: str) -> None:
        await self.sio.emit(
            "visitor.message",
            {"text": text},
            room=resident_room(self.normalizer(address).canonical),
            namespace=self.namespace,
        )

    async def send_approval_request(self, address: str, request: VisitorRequest, text: str) -> None:
        await self.sio.emit(
            "visitor.approval_request",
            {
                "requestId": request.id,
                "text": text,
                "footer": APPROVAL_FOOTER,
                "visitorName": request.visitor_name,
                "flatNumber": request.unit_number,
                "purpose": request.purpose,
                "photoUrl": request.photo_reference,
                "options": list(POLL_OPTIONS),
            },
            room=resident_room(self.normalizer(address).canonical),
            namespace=self.namespace,
        )
