from .config import Config, DEFAULT_MAPPER
from .credential import RegistryCredential
from .instance import InstanceFile, InstanceSummary, InputSection, MQTTInput, Step
from .manifest import LocalImage
from .reference import Reference

__all__ = [
    "Config",
    "DEFAULT_MAPPER",
    "RegistryCredential",
    "InstanceFile",
    "InstanceSummary",
    "InputSection",
    "MQTTInput",
    "Step",
    "LocalImage",
    "Reference",
]
