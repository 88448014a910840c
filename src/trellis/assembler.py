from typing import Iterable
import logging

from trellis.codegen import empty_block, exit_call, insert_before_close
from trellis.sources import CompiledFragment

logger = logging.getLogger(__name__)


class OutputAssembler:
    """Joins compiled fragments into the final program text.

    Unless ``no_exit`` is set, an ``exit`` call closes the last non-empty
    fragment. Unless ``lib_only`` is set, an empty hook block follows,
    for an embedding environment to fill in.
    """

    def __init__(self, no_exit: bool = False, lib_only: bool = False):
        self.no_exit = no_exit
        self.lib_only = lib_only

    def assemble(self, fragments: Iterable[CompiledFragment]) -> str:
        pieces = [fragment.text for fragment in fragments if fragment.text]

        if not self.no_exit:
            if pieces:
                pieces[-1] = insert_before_close(pieces[-1], exit_call())
            else:
                pieces.append(insert_before_close(empty_block(), exit_call()))

        if not self.lib_only:
            pieces.append(empty_block())

        logger.debug("Assembled %d blocks", len(pieces))
        return "\n".join(pieces) + "\n"
