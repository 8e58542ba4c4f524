import asyncio
from dataclasses import dataclass
from typing import Optional

from ..settings import BridgeSettings
from .node import Img2ImgNode


@dataclass
class BridgeState:
    node: Optional[Img2ImgNode] = None
    execution: Optional[asyncio.Task] = None

    def get_node(self) -> Img2ImgNode:
        if self.node is None:
            self.node = Img2ImgNode(BridgeSettings.from_env())
        return self.node

    async def shutdown(self):
        if self.execution is not None and not self.execution.done():
            self.execution.cancel()
            try:
                await self.execution
            except asyncio.CancelledError:
                pass
        self.execution = None
        if self.node is not None:
            await self.node.close()
            self.node = None


# Global bridge state, one node per bridge process
state = BridgeState()
