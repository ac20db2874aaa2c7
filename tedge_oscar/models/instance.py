from dataclasses import field

from pydantic.dataclasses import dataclass


@dataclass(frozen=True)
class Step:
    script: str
    interval: str | int | None = None


@dataclass(frozen=True)
class MQTTInput:
    topics: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class InputSection:
    mqtt: MQTTInput = field(default_factory=MQTTInput)


@dataclass(frozen=True)
class InstanceFile:
    steps: list[Step] = field(default_factory=list)
    input: InputSection = field(default_factory=InputSection)


@dataclass(frozen=True)
class InstanceSummary:
    name: str
    path: str
    topics: str = ""
    image: str = "<invalid>"
    image_version: str = "<unknown>"

    def as_row(self) -> dict[str, str]:
        return {
            "name": self.name,
            "path": self.path,
            "topics": self.topics,
            "image": self.image,
            "imageVersion": self.image_version,
        }
