from app.models.budget import Budget, BudgetAlert

__all__ = [
    "Budget",
    "BudgetAlert",
]
