from .evaluator import HealthEvaluator, health_state_for

__all__ = ["HealthEvaluator", "health_state_for"]
