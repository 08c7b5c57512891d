class SocketState:
    """Which resident address each connected socket belongs to."""

    def __init__(self):
        self.address_sids: dict[str, set[str]] = {}
        self.sid_address: dict[str, str] = {}

    def bind(self, address: str, sid: str):
        self.address_sids.setdefault(address, set()).add(sid)
        self.sid_address[sid] = address

    def unbind_sid(self, sid: str):
        address = self.sid_address.pop(sid, None)
        if address is None:
            return
        sids = self.address_sids.get(address)
        if sids is not None:
            sids.discard(sid)
            if not sids:
                self.address_sids.pop(address, None)

    def get_address(self, sid: str) -> str | None:
        return self.sid_address.get(sid)


socket_state = SocketState()
