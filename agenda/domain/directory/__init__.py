"""Directory domain - professionals, services and clients consumed by scheduling"""
