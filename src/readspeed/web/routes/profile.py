"""Profile endpoints for the signed-in reader."""

from fastapi import APIRouter, Depends, HTTPException, UploadFile, status

from readspeed.core import feature_flags, storage
from readspeed.db import users_repository as users
from readspeed.utils.validators import clean_optional_text
from readspeed.web.deps import CurrentUser, get_current_user
from readspeed.web.schemas import EnabledFeaturesResponse, ProfileResponse, ProfileUpdate

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.get("", response_model=ProfileResponse)
async def get_profile(current: CurrentUser = Depends(get_current_user)) -> ProfileResponse:
    return ProfileResponse.model_validate(current.profile)


@router.put("", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdate,
    current: CurrentUser = Depends(get_current_user),
) -> ProfileResponse:
    """Update name, city, avatar URL or privacy settings."""
    updates = body.model_dump(exclude_unset=True)
    for key in ("full_name", "city", "avatar_url"):
        if key in updates:
            updates[key] = clean_optional_text(updates[key])
    if "privacy_settings" in updates:
        merged = dict(current.profile.privacy_settings)
        for section, values in (updates["privacy_settings"] or {}).items():
            if isinstance(values, dict) and isinstance(merged.get(section), dict):
                merged[section] = {**merged[section], **values}
            else:
                merged[section] = values
        updates["privacy_settings"] = merged

    profile = users.update_profile(current.id, **updates)
    return ProfileResponse.model_validate(profile)


@router.post("/avatar", response_model=ProfileResponse)
async def upload_avatar(
    file: UploadFile,
    current: CurrentUser = Depends(get_current_user),
) -> ProfileResponse:
    data = await file.read()
    try:
        stored = storage.save_upload(
            storage.AVATARS_BUCKET,
            current.id,
            file.filename or "",
            file.content_type or "",
            data,
        )
    except storage.StorageError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    profile = users.update_profile(current.id, avatar_url=stored.public_url)
    return ProfileResponse.model_validate(profile)


@router.get("/features", response_model=EnabledFeaturesResponse)
async def get_features(current: CurrentUser = Depends(get_current_user)) -> EnabledFeaturesResponse:
    """Feature flags switched on for the caller's tier."""
    return EnabledFeaturesResponse(
        tier=current.tier,
        features=feature_flags.enabled_features(current.tier),
    )
