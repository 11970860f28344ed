"""
Repositories package — data-access layer.

Each repository file handles all DB operations for one aggregate and
implements the matching store protocol from `repositories.base`.
Repositories do NOT hold business logic beyond basic data integrity.

Convention:
    - One file per aggregate root (documents.py, workflows.py, approvals.py)
    - Module functions accept `AsyncSession` as the first argument and
      flush, never commit
    - The Sql*Store classes own the transaction for each protocol call
    - memory.py provides lock-guarded in-process stores with the same
      semantics
"""
