"""
Program entrypoint: route on the leading tag byte
"""

import logging
from typing import Sequence

from .address import PROGRAM_ID
from .errors import MalformedInput
from .instructions import VaultInstruction
from .instructions.open import OpenVault
from .instructions.split import SplitVault
from .instructions.close import CloseVault
from .svm_stack.ledger import AccountInfo

logger = logging.getLogger(__name__)

_HANDLERS = {
    OpenVault.DISCRIMINATOR: OpenVault,
    SplitVault.DISCRIMINATOR: SplitVault,
    CloseVault.DISCRIMINATOR: CloseVault,
}


def process_instruction(program_id: bytes, accounts: Sequence[AccountInfo], instruction_data: bytes):
    """Decode tag and payload, then run the selected transition"""
    if not instruction_data:
        raise MalformedInput("Instruction data is empty")

    tag, data = instruction_data[0], instruction_data[1:]
    try:
        handler = _HANDLERS[VaultInstruction(tag)]
    except ValueError:
        raise MalformedInput(f"Unknown instruction tag {tag}") from None

    logger.debug("Dispatching %s", handler.__name__)
    handler.from_parts(data, accounts).process(program_id)


def deploy(ledger, program_id: bytes = PROGRAM_ID):
    """Register the vault program on a ledger"""
    ledger.add_program(program_id, process_instruction)
    return program_id
