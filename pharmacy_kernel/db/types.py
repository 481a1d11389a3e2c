"""
Module: pharmacy_kernel.db.types
Responsibility: Reusable annotated column types.
Architecture position: Kernel > DB.  Imported by models/.

Money and rate columns are Numeric(38, 9) in storage.  Amounts are rounded
to the configured precision in the domain layer before they are written.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import Numeric, String
from sqlalchemy.orm import mapped_column

Money = Annotated[Decimal, mapped_column(Numeric(38, 9), nullable=False, default=Decimal("0"))]
Rate = Annotated[Decimal, mapped_column(Numeric(38, 9), nullable=False, default=Decimal("0"))]
Percent = Annotated[Decimal, mapped_column(Numeric(9, 4), nullable=False, default=Decimal("0"))]
Quantity = Annotated[int, mapped_column(nullable=False, default=0)]
ShortText = Annotated[str | None, mapped_column(String(100), nullable=True)]
