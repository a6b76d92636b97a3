# Overview: Shared base for services bound to an explicit inventory context.

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..context import InventoryContext


class BaseService:
    def __init__(self, ctx: "InventoryContext"):
        self.ctx = ctx

    @property
    def session(self):
        return self.ctx.session

    @property
    def log(self):
        return self.ctx.logger
