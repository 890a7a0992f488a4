import logging
import cloudinary
import cloudinary.uploader
import cloudinary.utils
import os
from fastapi import UploadFile, HTTPException

logger = logging.getLogger(__name__)

# Configure Cloudinary
cloudinary.config(
    cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
    api_key=os.getenv("CLOUDINARY_API_KEY"),
    api_secret=os.getenv("CLOUDINARY_API_SECRET"),
    secure=True
)


async def upload_image(file: UploadFile, folder: str = "snapgram") -> dict:
    """
    Upload an image to Cloudinary and return its file id (public_id) and URL
    """
    try:
        # Read file content
        contents = await file.read()

        result = cloudinary.uploader.upload(
            contents,
            folder=folder,
            resource_type="image",
        )

        return {
            "file_id": result.get("public_id"),
            "url": get_file_preview(result.get("public_id")),
            "width": result.get("width"),
            "height": result.get("height")
        }
    except Exception as e:
        logger.error(f"❌ Cloudinary upload error: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload image") from e


def get_file_preview(file_id: str, width: int = 2000, height: int = 2000) -> str:
    """
    Build a resized preview URL for a stored image
    """
    url, _ = cloudinary.utils.cloudinary_url(
        file_id,
        secure=True,
        transformation=[
            {"width": width, "height": height, "crop": "limit"},
            {"quality": "auto:good"},
        ],
    )
    return url


def delete_image(file_id: str) -> bool:
    """
    Delete an image from Cloudinary by public_id
    """
    try:
        result = cloudinary.uploader.destroy(file_id)
        return result.get("result") == "ok"
    except Exception as e:
        logger.warning(f"⚠️ Cloudinary delete error: {e}")
        return False
