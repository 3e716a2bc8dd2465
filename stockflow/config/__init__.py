from .schema import SimulationConfig, StockflowBaseModel, load_config

__all__ = [
    "SimulationConfig",
    "StockflowBaseModel",
    "load_config",
]
