MINUTE = 60

STALE_SECONDS = {
    "tasks.list": 5 * MINUTE,
    "tasks.detail": 5 * MINUTE,
    "tasks.stats": 2 * MINUTE,
    "tasks.matrix": 5 * MINUTE,
    "health.logs": 2 * MINUTE,
    "health.summary": 5 * MINUTE,
    "health.insights": 10 * MINUTE,
    "health.goals": 5 * MINUTE,
    "health.nutrition": 10 * MINUTE,
    "notifications.preferences": 10 * MINUTE,
    "notifications.history": 2 * MINUTE,
    "notifications.list": 1 * MINUTE,
    "social.connections": 2 * MINUTE,
    "social.challenges": 2 * MINUTE,
    "social.public": 5 * MINUTE,
    "social.feed": 1 * MINUTE,
    "voice.notes": 2 * MINUTE,
    "voice.note": 5 * MINUTE,
    "voice.settings": 10 * MINUTE,
    "voice.analytics": 5 * MINUTE,
}

OPTIMISTIC_USER_ID = "current-user"

# Push message type (exact, or prefix ending in ".") -> cache prefixes to invalidate.
SSE_INVALIDATIONS = {
    "task.": [("tasks",)],
    "task_reminder": [("tasks",)],
    "health.": [("health",)],
    "health_insight": [("health", "insights")],
    "social.challenge.": [("social", "challenges")],
    "social.connection.": [("social", "connections")],
    "social.achievement.": [("social", "activity-feed")],
    "challenge_update": [("social", "challenges")],
    "badge.": [("social", "activity-feed")],
    "badge_unlocked": [("social", "activity-feed")],
    "notification.": [("notifications",)],
    "notification": [("notifications",)],
}

# Push message type -> (toast level, template over the message data).
SSE_TOASTS = {
    "task.created": ("success", "✅ Task created: {title}"),
    "task.updated": ("success", "📝 Task updated: {title}"),
    "task.completed": ("success", "🎉 Task completed: {title}"),
    "task.deleted": ("success", "🗑️ Task deleted: {title}"),
    "task.reminder": ("success", "⏰ Task reminder: {title}"),
    "health.log.created": ("success", "💪 Health log recorded: {type}"),
    "health.insight.generated": ("success", "💡 Health insight: {message}"),
    "health.goal.achieved": ("success", "🏆 Health goal achieved: {goal}"),
    "health.goal.updated": ("success", "📊 Health goal updated: {goal}"),
    "social.connection.request": ("success", "👥 New connection request from {from}"),
    "social.connection.accepted": ("success", "👥 Connection accepted: {name}"),
    "social.challenge.created": ("success", "🏆 New challenge: {title}"),
    "social.challenge.completed": ("success", "🏆 Challenge completed: {title}"),
    "social.achievement.unlocked": ("success", "🎉 Achievement unlocked: {achievement}"),
    "badge.unlocked": ("success", "🎉 Badge unlocked: {name}!"),
    "badge.progress.updated": ("success", "🏆 Badge progress: {progress}%"),
    "system.maintenance.scheduled": ("error", "🔧 System maintenance scheduled: {message}"),
    "system.update.available": ("success", "🔄 System update available: {version}"),
    "system.alert": ("error", "⚠️ System alert: {message}"),
    "connected": ("success", "🔗 Real-time connection established"),
    "disconnected": ("error", "🔌 Real-time connection lost"),
    "error": ("error", "❌ Real-time error: {message}"),
    "badge_unlocked": ("success", "🎉 Badge unlocked: {name}!"),
    "challenge_update": ("success", "Challenge update: {title}"),
    "task_reminder": ("success", "⏰ Task reminder: {title}"),
    "health_insight": ("success", "💡 Health insight: {message}"),
}

# notification.received and the legacy "notification" type pick the level by priority.
SSE_NOTIFICATION_TYPES = {"notification.received", "notification"}
URGENT_PRIORITIES = {"high", "urgent"}
SSE_SILENT_TYPES = {"heartbeat", "notification.read", "notification.deleted"}

SSE_RECONNECT_BASE_SECONDS = 1.0
SSE_RECONNECT_MAX_SECONDS = 30.0
SSE_DISCONNECTED_MESSAGE = "Real-time updates disconnected. Please refresh the page."
SSE_CONNECTED_MESSAGE = "Real-time updates connected"
