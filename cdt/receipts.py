"""Export of confirmed donation receipts."""

import json
from pathlib import Path

from .models import TransactionReceipt


def receipt_filename(receipt: TransactionReceipt) -> str:
    return f"transaction-receipt-{receipt.transaction_hash}.json"


def export_receipt(receipt: TransactionReceipt, directory: Path) -> Path:
    """Write the receipt as pretty-printed JSON into ``directory``."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / receipt_filename(receipt)

    with open(path, "w") as f:
        json.dump(receipt.to_dict(), f, indent=2, default=str)

    return path
