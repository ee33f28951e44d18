from famsplit.routers import auth, expenses, families, health, projects, wallets

__all__ = [
    "health",
    "auth",
    "families",
    "projects",
    "expenses",
    "wallets",
]
