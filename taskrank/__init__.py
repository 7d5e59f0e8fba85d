"""taskrank: productivity-based XP, levels and rankings from task deliveries."""
