from .identity import AddressKind, DeviceRole, PeripheralIdentity
from .quantity import QuantityKind, QuantityDomain, DOMAINS
from .reading import SensorReading
from .calibration import CalibrationTable, CalibrationPipeline, UNCALIBRATED_VALUE
from .loader import CalibrationLoader

__all__ = ["AddressKind",
           "DeviceRole",
           "PeripheralIdentity",
           "QuantityKind",
           "QuantityDomain",
           "DOMAINS",
           "SensorReading",
           "CalibrationTable",
           "CalibrationPipeline",
           "UNCALIBRATED_VALUE",
           "CalibrationLoader"]
