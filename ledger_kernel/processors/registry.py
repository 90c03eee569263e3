"""
Voucher processor registry.

Maps each VoucherType to the processor that handles it.
"""

from typing import Dict

from ledger_kernel.domain.vouchers import ProcessedVoucher, VoucherType
from ledger_kernel.processors.base import BaseVoucherProcessor, ProcessingContext


class VoucherProcessorRegistry:
    """Lookup of processors by voucher type."""

    def __init__(self):
        self._processors: Dict[VoucherType, BaseVoucherProcessor] = {}

    def register(self, processor: BaseVoucherProcessor) -> None:
        self._processors[VoucherType(processor.voucher_type)] = processor

    def get_processor(self, voucher_type: VoucherType | str) -> BaseVoucherProcessor | None:
        return self._processors.get(VoucherType(voucher_type))

    def process(self, payload, ctx: ProcessingContext) -> ProcessedVoucher:
        """
        Route ``payload`` to the processor for its voucher type.

        Raises:
            ValueError: No processor registered for the payload's type.
        """
        processor = self.get_processor(payload.voucher_type)
        if processor is None:
            raise ValueError(
                f"No processor registered for voucher type: {VoucherType(payload.voucher_type).value}"
            )
        return processor.process(payload, ctx)

    def list_voucher_types(self) -> list[VoucherType]:
        return list(self._processors.keys())


def build_default_registry() -> VoucherProcessorRegistry:
    """Registry with the five built-in voucher processors."""
    from ledger_kernel.processors.contra import ContraProcessor
    from ledger_kernel.processors.expense import ExpenseProcessor
    from ledger_kernel.processors.journal import JournalProcessor
    from ledger_kernel.processors.party_settlement import PaymentProcessor, ReceiptProcessor

    registry = VoucherProcessorRegistry()
    for processor in (
        ReceiptProcessor(),
        PaymentProcessor(),
        JournalProcessor(),
        ContraProcessor(),
        ExpenseProcessor(),
    ):
        registry.register(processor)
    return registry


_default_registry: VoucherProcessorRegistry | None = None


def get_default_registry() -> VoucherProcessorRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = build_default_registry()
    return _default_registry
