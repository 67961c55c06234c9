from __future__ import annotations

from src.core.config import PipelineConfig


class BaseService:
    """
    Base class for services. Holds the per-request pipeline configuration.

    Services keep orchestration and external calls; display formatting lives in
    the row builder and the document renderer.
    """

    def __init__(self, config: PipelineConfig) -> None:
        self.config = config
