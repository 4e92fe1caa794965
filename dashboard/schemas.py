from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from dashboard.errors import FormValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

Quadrant = Literal["do", "decide", "delegate", "delete"]
TaskStatus = Literal["pending", "done", "archived"]


class ApiModel(BaseModel):
    """Server resource. Unknown fields are kept so cached records stay verbatim."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class CamelApiModel(ApiModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", alias_generator=to_camel)


class FormModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
        alias_generator=to_camel,
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ---- tasks ----


class Task(ApiModel):
    id: str
    user_id: str = ""
    title: str
    description: Optional[str] = None
    priority: int = 2
    urgency: Optional[int] = None
    importance: Optional[int] = None
    eisenhower_quadrant: Optional[Quadrant] = None
    status: str = "pending"
    due_date: Optional[int] = None
    estimated_duration: Optional[int] = None
    ai_priority_score: Optional[float] = None
    energy_level_required: Optional[int] = None
    context_type: Optional[str] = None
    matrix_notes: Optional[str] = None
    is_delegated: bool = False
    delegated_to: Optional[str] = None
    delegation_notes: Optional[str] = None
    created_at: int = 0
    updated_at: int = 0
    completed_at: Optional[int] = None


class TaskPage(CamelApiModel):
    tasks: List[Task] = Field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None
    total: Optional[int] = None


class TaskStats(ApiModel):
    total: int = 0
    completed: int = 0
    pending: int = 0
    overdue: int = 0


class EisenhowerMatrix(ApiModel):
    do: List[Task] = Field(default_factory=list)
    decide: List[Task] = Field(default_factory=list)
    delegate: List[Task] = Field(default_factory=list)
    delete: List[Task] = Field(default_factory=list)
    stats: Dict[str, int] = Field(default_factory=dict)


class MatrixStats(CamelApiModel):
    quadrant_distribution: Dict[str, float] = Field(default_factory=dict)
    completion_rates: Dict[str, float] = Field(default_factory=dict)


class TaskForm(FormModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    priority: int = Field(ge=1, le=4)
    urgency: Optional[int] = Field(None, ge=1, le=4)
    importance: Optional[int] = Field(None, ge=1, le=4)
    eisenhower_quadrant: Optional[Quadrant] = Field(None, alias="eisenhower_quadrant")
    due_date: Optional[int] = Field(None, ge=0)
    estimated_duration: Optional[int] = Field(None, gt=0)
    context_type: Optional[str] = None
    status: Optional[TaskStatus] = None
    matrix_notes: Optional[str] = None
    is_delegated: Optional[bool] = None
    delegated_to: Optional[str] = None
    delegation_notes: Optional[str] = None


class TaskPatch(FormModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    priority: Optional[int] = Field(None, ge=1, le=4)
    urgency: Optional[int] = Field(None, ge=1, le=4)
    importance: Optional[int] = Field(None, ge=1, le=4)
    eisenhower_quadrant: Optional[Quadrant] = Field(None, alias="eisenhower_quadrant")
    due_date: Optional[int] = Field(None, ge=0)
    estimated_duration: Optional[int] = Field(None, gt=0)
    context_type: Optional[str] = None
    status: Optional[TaskStatus] = None
    matrix_notes: Optional[str] = None
    is_delegated: Optional[bool] = None
    delegated_to: Optional[str] = None
    delegation_notes: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class MatrixPlacement(FormModel):
    urgency: int = Field(ge=1, le=4)
    importance: int = Field(ge=1, le=4)


# ---- health ----


class HealthLog(CamelApiModel):
    id: str
    user_id: str = ""
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    value: Optional[float] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    category: Optional[str] = None
    recorded_at: int = 0
    source: str = "manual"
    device_type: Optional[str] = None
    created_at: int = 0


class HealthLogPage(CamelApiModel):
    data: List[HealthLog] = Field(default_factory=list)
    pagination: Optional[Dict[str, Any]] = None


class HealthGoal(CamelApiModel):
    id: str
    user_id: str = ""
    type: str
    target_value: float
    target_period: str = "daily"
    start_date: int = 0
    end_date: int = 0
    description: str = ""
    progress: Dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True


class ExerciseForm(FormModel):
    activity: str = Field(min_length=1, max_length=100)
    duration_minutes: int = Field(gt=0, le=1440)
    intensity: int = Field(ge=1, le=10)
    calories_burned: Optional[float] = Field(None, ge=0)
    distance: Optional[float] = Field(None, ge=0)
    heart_rate_avg: Optional[int] = Field(None, gt=0)
    heart_rate_max: Optional[int] = Field(None, gt=0)
    notes: Optional[str] = None


class NutritionForm(FormModel):
    meal_type: Literal["breakfast", "lunch", "dinner", "snack"]
    description: str = Field(min_length=1, max_length=500)
    calories: Optional[float] = Field(None, ge=0)
    protein: Optional[float] = Field(None, ge=0)
    carbs: Optional[float] = Field(None, ge=0)
    fat: Optional[float] = Field(None, ge=0)
    fiber: Optional[float] = Field(None, ge=0)
    sugar: Optional[float] = Field(None, ge=0)


class MoodForm(FormModel):
    score: int = Field(ge=1, le=10)
    energy: int = Field(ge=1, le=10)
    stress: int = Field(ge=1, le=10)
    sleep: Optional[int] = Field(None, ge=1, le=10)
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class HydrationForm(FormModel):
    amount: int = Field(gt=0, le=5000)
    drink_type: Literal["water", "coffee", "tea", "juice", "sports_drink", "other"] = "water"
    temperature: Optional[Literal["hot", "warm", "room_temp", "cold", "ice_cold"]] = None


class SleepForm(FormModel):
    hours: float = Field(ge=0, le=24)
    quality: Optional[int] = Field(None, ge=1, le=10)
    notes: Optional[str] = Field(None, max_length=500)

    def to_payload(self) -> Dict[str, Any]:
        notes = self.notes or ""
        if self.quality is not None:
            notes = f"quality: {self.quality}" + (f", {notes}" if notes else "")
        return {"type": "sleep", "value": self.hours, "unit": "hours", "notes": notes}


class WeightForm(FormModel):
    value: float = Field(gt=0, le=1000)
    unit: Literal["kg", "lb"] = "kg"
    notes: Optional[str] = Field(None, max_length=500)

    def to_payload(self) -> Dict[str, Any]:
        return {"type": "weight", "value": self.value, "unit": self.unit, "notes": self.notes or ""}


class HealthGoalForm(FormModel):
    type: Literal["exercise_frequency", "nutrition_calories", "mood_average", "hydration_daily"]
    target_value: float = Field(gt=0)
    target_period: Literal["daily", "weekly", "monthly"] = "daily"
    start_date: int = Field(ge=0)
    end_date: int = Field(ge=0)
    description: str = Field("", max_length=500)

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date <= self.start_date:
            raise ValueError("end date must be after start date")
        return self


class HealthGoalPatch(FormModel):
    target_value: Optional[float] = Field(None, gt=0)
    target_period: Optional[Literal["daily", "weekly", "monthly"]] = None
    end_date: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# ---- notifications ----


class Notification(CamelApiModel):
    id: str
    user_id: str = ""
    title: str = ""
    message: str = ""
    type: str = "info"
    category: str = "system"
    priority: str = "medium"
    read: bool = False
    action_url: Optional[str] = None
    created_at: int = 0
    read_at: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None


class QuietHours(FormModel):
    enabled: bool = False
    start: str = Field("22:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    end: str = Field("07:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")


class NotificationPreferences(FormModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
        alias_generator=to_camel,
    )

    task_reminders: bool = True
    health_reminders: bool = True
    social_notifications: bool = True
    badge_unlocks: bool = True
    challenge_updates: bool = True
    meeting_reminders: bool = True
    deadline_alerts: bool = True
    quiet_hours: QuietHours = Field(default_factory=QuietHours)


class DeviceRegistration(FormModel):
    device_token: str = Field(min_length=1)
    platform: Literal["ios", "android", "web"] = "web"
    app_version: str = Field(min_length=1)


# ---- social ----


class Challenge(CamelApiModel):
    id: str
    title: str
    description: str = ""
    type: str
    target_value: float = 0
    start_date: int = 0
    end_date: int = 0
    is_public: bool = False
    created_by: str = ""
    participants: List[Dict[str, Any]] = Field(default_factory=list)
    leaderboard: List[Dict[str, Any]] = Field(default_factory=list)
    is_active: bool = True


class Connection(CamelApiModel):
    id: str
    user_id: str = ""
    first_name: str = ""
    last_name: str = ""
    status: Literal["pending", "accepted", "declined"] = "pending"
    connected_at: Optional[int] = None
    message: Optional[str] = None


class ConnectionList(CamelApiModel):
    connections: List[Connection] = Field(default_factory=list)
    pending_requests: List[Connection] = Field(default_factory=list)


class ChallengeForm(FormModel):
    title: str = Field(min_length=1, max_length=120)
    description: str = Field("", max_length=1000)
    type: Literal["exercise_streak", "task_completion", "focus_time", "health_logging"]
    target_value: float = Field(gt=0)
    start_date: int = Field(ge=0)
    end_date: int = Field(ge=0)
    is_public: bool = False

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date <= self.start_date:
            raise ValueError("end date must be after start date")
        return self


class ConnectionRequestForm(FormModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    message: Optional[str] = Field(None, max_length=500)


class AchievementShare(FormModel):
    type: str = Field(min_length=1)
    content: Any = None
    platform: Optional[str] = None


# ---- voice ----


class VoiceNote(CamelApiModel):
    id: str
    user_id: str = ""
    transcription: str = ""
    confidence: float = 0.0
    analysis: Dict[str, Any] = Field(default_factory=dict)
    audio_url: str = ""
    duration: float = 0.0
    created_at: int = 0


class VoiceNotePage(CamelApiModel):
    notes: List[VoiceNote] = Field(default_factory=list)
    total: int = 0


class VoiceSettings(CamelApiModel):
    language: str = "en"
    auto_transcribe: bool = True
    commands_enabled: bool = True
    noise_reduction: bool = True
    confidence_threshold: float = 0.7


class VoiceSettingsPatch(FormModel):
    language: Optional[Literal["en", "de"]] = None
    auto_transcribe: Optional[bool] = None
    commands_enabled: Optional[bool] = None
    noise_reduction: Optional[bool] = None
    confidence_threshold: Optional[float] = Field(None, ge=0, le=1)

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class VoiceCommand(CamelApiModel):
    intent: str
    confidence: float = 0.0
    parameters: Dict[str, Any] = Field(default_factory=dict)


class VoiceCommandRequest(FormModel):
    transcription: str = Field(min_length=1)
    context: Optional[str] = None


# ---- realtime ----


class SSEMessage(BaseModel):
    type: str
    data: Any = None
    timestamp: int = 0


def validate_form(model_cls: Type[ModelT], data: Any) -> ModelT:
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        raise FormValidationError.from_validation_error(exc) from exc


def parse_model(model_cls: Type[ModelT], payload: Any) -> ModelT:
    if isinstance(payload, model_cls):
        return payload
    return model_cls.model_validate(payload)
