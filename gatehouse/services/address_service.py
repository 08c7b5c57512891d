import re
from dataclasses import dataclass, field
from typing import Callable

WHATSAPP_USER_SUFFIX = "@s.whatsapp.net"
WHATSAPP_LEGACY_SUFFIX = "@c.us"

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class NormalizedAddress:
    canonical: str
    variants: tuple[str, ...] = field(default_factory=tuple)

    def candidates(self) -> list[str]:
        """Canonical form first, then each variant once, in order."""
        ordered: list[str] = []
        for address in (self.canonical, *self.variants):
            if address and address not in ordered:
                ordered.append(address)
        return ordered


AddressNormalizer = Callable[[str], NormalizedAddress]


def digits_only(raw: str) -> str:
    return _NON_DIGITS.sub("", raw or "")


def phone_normalizer(raw: str) -> NormalizedAddress:
    raw = (raw or "").strip()
    digits = digits_only(raw.split("@", 1)[0])
    return NormalizedAddress(canonical=digits or raw, variants=(raw,))


def whatsapp_normalizer(raw: str) -> NormalizedAddress:
    raw = (raw or "").strip()
    local_part = raw.split("@", 1)[0]
    digits = digits_only(local_part)
    if not digits:
        return NormalizedAddress(canonical=raw)
    return NormalizedAddress(
        canonical=f"{digits}{WHATSAPP_USER_SUFFIX}",
        variants=(raw, f"{digits}{WHATSAPP_LEGACY_SUFFIX}"),
    )


NORMALIZERS: dict[str, AddressNormalizer] = {
    "phone": phone_normalizer,
    "whatsapp": whatsapp_normalizer,
}


def get_normalizer(address_format: str) -> AddressNormalizer:
    try:
        return NORMALIZERS[address_format.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown address format: {address_format}") from None
