"""Fund movement: spend-call pulls, transfers and swaps through the custodial account."""
