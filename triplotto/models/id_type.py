from sqlalchemy import BigInteger, Integer

# Use BigInteger by default, with a SQLite-safe Integer variant for autoincrement PKs.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")

# Monetary amounts are whole numbers of the smallest currency unit.
AMOUNT_TYPE = BigInteger().with_variant(Integer, "sqlite")
