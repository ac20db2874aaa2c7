from pydantic.dataclasses import dataclass


@dataclass(frozen=True)
class RegistryCredential:
    registry: str
    username: str
    password: str

    def __repr__(self) -> str:
        return f"RegistryCredential(registry={self.registry!r}, username={self.username!r}, password='***')"
