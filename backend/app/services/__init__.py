"""
Services for the Tubely backend.

- upload_receiver: Streams a multipart file part into a scoped temp file
- aspect_service: ffprobe-based aspect classification
- remux_service: ffmpeg fast-start remux
- storage_service: Object keys, S3 PUT with retry, presigned GET URLs
- locator_signer: Turns stored locators into client-fetchable URLs
- video_repository: MongoDB-backed video record store
- upload_service: Orchestrates the video and thumbnail upload pipelines
"""
