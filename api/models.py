"""
API request and response models for CampaignHub REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the domain dataclasses in auth/models.py,
taxonomy/models.py and sitesettings/models.py. Route handlers map between the
two with the from_* factory classmethods defined here.

Response shaping rule: no response model declares hashed_password or any
activation / reset token field. Projection is by construction, so secrets
cannot leak through a forgotten exclude.
"""

from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator

from auth.models import Admin, User
from auth.tokens import password_fits_bcrypt
from core.models import Page
from sitesettings.models import SiteSetting
from taxonomy.models import DropdownOption, Language

# ---------------------------------------------------------------------------
# Constrained types
# ---------------------------------------------------------------------------

# bcrypt only accepts 72 bytes of input. The limit is on the UTF-8 encoding,
# so a 30-character CJK password (90 bytes) is rejected with a 400.


def _check_password_bytes(value: str) -> str:
    if not password_fits_bcrypt(value):
        raise ValueError("password must be at most 72 bytes when UTF-8 encoded")
    return value


Password = Annotated[str, Field(min_length=8, max_length=72), AfterValidator(_check_password_bytes)]
PersonName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]
ShortText = Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)]
LanguageCode = Annotated[str, StringConstraints(strip_whitespace=True, to_lower=True, pattern=r"^[a-z]{2,3}$")]
OptionName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]


class OutsideLinkModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=100)
    url: str = Field(max_length=2048, pattern=r"^https?://\S+$")


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    first_name: PersonName
    last_name: PersonName
    email: EmailStr
    password: Password
    phone_number: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=30)]] = None
    location: Optional[ShortText] = None
    zipcode: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=20)]] = None
    about: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=2000)]] = None
    outside_links: list[OutsideLinkModel] = Field(default_factory=list, max_length=10)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=256)
    password: Password


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: Password
    confirm_password: str = Field(min_length=1, max_length=128)


class ProfileUpdateRequest(BaseModel):
    """PATCH body for /users/me. Only the fields sent are changed."""

    first_name: Optional[PersonName] = None
    last_name: Optional[PersonName] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=30)]] = None
    location: Optional[ShortText] = None
    zipcode: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=20)]] = None
    about: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=2000)]] = None
    outside_links: Optional[list[OutsideLinkModel]] = Field(default=None, max_length=10)

    @field_validator("first_name", "last_name", "email")
    @classmethod
    def reject_null(cls, value):
        # These columns are NOT NULL; an explicit null is a client error.
        if value is None:
            raise ValueError("must not be null")
        return value


# ---------------------------------------------------------------------------
# Admin -- request models
# ---------------------------------------------------------------------------


class AdminCreateRequest(BaseModel):
    """Multipart fields for POST /api/v1/admins (validated explicitly in the route)."""

    first_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
    last_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
    email: EmailStr
    password: Password
    password_confirm: str = Field(min_length=1, max_length=128)
    is_active: bool = True
    two_factor_verified: bool = False


class AdminUpdateRequest(BaseModel):
    first_name: Optional[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]] = None
    last_name: Optional[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]] = None
    email: Optional[EmailStr] = None
    is_active: Optional[bool] = None
    two_factor_verified: Optional[bool] = None


class AdminPasswordUpdateRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    password: Password
    password_confirm: str = Field(min_length=1, max_length=128)


class AdminResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=256)
    password: Password
    password_confirm: str = Field(min_length=1, max_length=128)


# ---------------------------------------------------------------------------
# Taxonomy -- request models
# ---------------------------------------------------------------------------


class BulkActionEnum(str, Enum):
    activate = "activate"
    deactivate = "deactivate"
    delete = "delete"


class LanguageCreateRequest(BaseModel):
    code: LanguageCode
    name: OptionName
    is_default: bool = False
    is_active: bool = True


class LanguageUpdateRequest(BaseModel):
    name: Optional[OptionName] = None
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None


class DropdownCreateRequest(BaseModel):
    """Body for POST /admin/dropdowns/{dropdown_type}.

    Without language_code the option is created once per active language.
    All rows share unique_code; one is generated when it is omitted.
    """

    name: OptionName
    unique_code: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)]] = None
    is_default: bool = False
    is_active: bool = True
    language_code: Optional[LanguageCode] = None


class DropdownUpdateRequest(BaseModel):
    name: Optional[OptionName] = None
    unique_code: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)]] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None


class DropdownBulkRequest(BaseModel):
    action: BulkActionEnum
    ids: list[str] = Field(min_length=1, max_length=100)


class SettingUpdateRequest(BaseModel):
    value: str = Field(max_length=10_000)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class UserProfile(BaseModel):
    """The owner's view of their own account."""

    model_config = ConfigDict(frozen=True)

    public_id: str
    first_name: str
    last_name: str
    full_name: str
    slug: str
    email: str
    status: str
    phone_number: Optional[str] = None
    location: Optional[str] = None
    zipcode: Optional[str] = None
    about: Optional[str] = None
    outside_links: list[OutsideLinkModel] = []
    photo: Optional[str] = None
    cover_photo: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        """Factory Method: project a User into its caller-safe shape."""
        return cls(
            public_id=user.public_id,
            first_name=user.first_name,
            last_name=user.last_name,
            full_name=user.full_name,
            slug=user.slug,
            email=user.email,
            status=user.status.value,
            phone_number=user.phone_number,
            location=user.location,
            zipcode=user.zipcode,
            about=user.about,
            outside_links=[OutsideLinkModel(title=link.title, url=link.url) for link in user.outside_links],
            photo=user.photo,
            cover_photo=user.cover_photo,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class PublicUserProfile(BaseModel):
    """What anyone may see of a member via /users/slug/{slug}. No contact details."""

    model_config = ConfigDict(frozen=True)

    public_id: str
    first_name: str
    last_name: str
    slug: str
    location: Optional[str] = None
    about: Optional[str] = None
    outside_links: list[OutsideLinkModel] = []
    photo: Optional[str] = None
    cover_photo: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "PublicUserProfile":
        return cls(
            public_id=user.public_id,
            first_name=user.first_name,
            last_name=user.last_name,
            slug=user.slug,
            location=user.location,
            about=user.about,
            outside_links=[OutsideLinkModel(title=link.title, url=link.url) for link in user.outside_links],
            photo=user.photo,
            cover_photo=user.cover_photo,
        )


class UserEnvelope(BaseModel):
    """Message plus the affected profile (register, activate, profile update)."""

    model_config = ConfigDict(frozen=True)

    message: str
    user: UserProfile


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserProfile


class AdminProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    public_id: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    photo: Optional[str] = None
    is_active: bool
    two_factor_verified: bool
    current_login_at: Optional[str] = None
    last_login_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_admin(cls, admin: Admin) -> "AdminProfile":
        return cls(
            public_id=admin.public_id,
            first_name=admin.first_name,
            last_name=admin.last_name,
            full_name=admin.full_name,
            email=admin.email,
            photo=admin.photo,
            is_active=admin.is_active,
            two_factor_verified=admin.two_factor_verified,
            current_login_at=admin.current_login_at,
            last_login_at=admin.last_login_at,
            created_at=admin.created_at,
            updated_at=admin.updated_at,
        )


class AdminEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    admin: AdminProfile


class AdminLoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    admin: AdminProfile


class AdminPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: list[AdminProfile]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def from_page(cls, page: Page) -> "AdminPage":
        return cls(
            items=[AdminProfile.from_admin(a) for a in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            pages=page.pages,
        )


class LanguageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    public_id: str
    code: str
    name: str
    is_default: bool
    is_active: bool

    @classmethod
    def from_language(cls, language: Language) -> "LanguageResponse":
        return cls(
            public_id=language.public_id,
            code=language.code,
            name=language.name,
            is_default=language.is_default,
            is_active=language.is_active,
        )


class DropdownResponse(BaseModel):
    """Admin view of one dropdown option row."""

    model_config = ConfigDict(frozen=True)

    public_id: str
    dropdown_type: str
    language_code: str
    name: str
    unique_code: Optional[str] = None
    is_default: bool
    is_active: bool
    use_count: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_option(cls, option: DropdownOption) -> "DropdownResponse":
        return cls(
            public_id=option.public_id,
            dropdown_type=option.dropdown_type,
            language_code=option.language_code,
            name=option.name,
            unique_code=option.unique_code,
            is_default=option.is_default,
            is_active=option.is_active,
            use_count=option.use_count,
            created_at=option.created_at,
            updated_at=option.updated_at,
        )


class DropdownPublicItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    public_id: str
    name: str
    unique_code: Optional[str] = None
    is_default: bool

    @classmethod
    def from_option(cls, option: DropdownOption) -> "DropdownPublicItem":
        return cls(
            public_id=option.public_id,
            name=option.name,
            unique_code=option.unique_code,
            is_default=option.is_default,
        )


class DropdownPublicList(BaseModel):
    """Response for GET /dropdowns/{dropdown_type}.

    language is the language the items are actually in, which differs from
    the requested language when the fallback chain had to be used.
    """

    model_config = ConfigDict(frozen=True)

    dropdown_type: str
    language: str
    items: list[DropdownPublicItem]


class DropdownCreateResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    items: list[DropdownResponse]


class DropdownEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    item: DropdownResponse


class DropdownPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: list[DropdownResponse]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def from_page(cls, page: Page) -> "DropdownPage":
        return cls(
            items=[DropdownResponse.from_option(o) for o in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            pages=page.pages,
        )


class BulkResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    affected: int


class SettingResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    group_type: str
    key: str
    value: Optional[str] = None
    record_type: str
    updated_at: Optional[str] = None

    @classmethod
    def from_setting(cls, setting: SiteSetting) -> "SettingResponse":
        return cls(
            group_type=setting.group_type,
            key=setting.key,
            value=setting.value,
            record_type=setting.record_type.value,
            updated_at=setting.updated_at,
        )


class SettingsGroupResponse(BaseModel):
    """A settings group as a list of records plus a flat key -> value map."""

    model_config = ConfigDict(frozen=True)

    group_type: str
    settings: list[SettingResponse]
    values: dict[str, Optional[str]]

    @classmethod
    def from_settings(cls, group_type: str, settings: list[SiteSetting]) -> "SettingsGroupResponse":
        return cls(
            group_type=group_type,
            settings=[SettingResponse.from_setting(s) for s in settings],
            values={s.key: s.value for s in settings},
        )


class CacheStatsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    entries: int
    expired: int
    ttl_seconds: int
    hits: int
    misses: int


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    message_key: Optional[str] = None
    detail: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    language: str
    components: dict[str, str]
