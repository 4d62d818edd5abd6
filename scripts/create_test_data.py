#!/usr/bin/env python3
"""
Test Data Generation Script for Tubely.

Inserts draft video records for a local development user and prints a bearer
token for that user, so the upload endpoints can be exercised by hand:

    python scripts/create_test_data.py --count 2
    curl -H "Authorization: Bearer <token>" \\
         -F "video=@boots.mp4;type=video/mp4" \\
         http://localhost:8091/api/v1/videos/<video id>/upload

Usage:
    python create_test_data.py [options]

Options:
    --count INT      Number of draft videos to create (default: 1)
    --user-id UUID   Owner of the drafts (default: a new random user)
    --clean          Delete the user's existing videos first

Connection settings (MONGODB_URI, MONGODB_DB_NAME, SECRET_KEY, ...) come from
the environment or `.env`, exactly as for the API server.
"""

import argparse
import sys
import uuid

from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from app.config import get_settings
from app.core.auth import create_access_token
from app.core.database import VIDEOS_COLLECTION
from app.models.video import Video


CONNECTION_TIMEOUT_MS = 5000

SAMPLE_TITLES = [
    "Boots in the rain",
    "Morning commute timelapse",
    "Unboxing the new camera",
    "Vertical clip from the concert",
]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create draft Tubely videos for local testing")
    parser.add_argument("--count", type=int, default=1, help="Number of draft videos to create")
    parser.add_argument("--user-id", type=uuid.UUID, default=None, help="Owner of the drafts")
    parser.add_argument("--clean", action="store_true", help="Delete the user's existing videos")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    settings = get_settings()
    user_id = args.user_id or uuid.uuid4()

    client: MongoClient = MongoClient(
        settings.mongodb_uri,
        serverSelectionTimeoutMS=CONNECTION_TIMEOUT_MS,
        uuidRepresentation="standard",
        tz_aware=True,
    )
    try:
        client.admin.command("ping")
    except (ConnectionFailure, ServerSelectionTimeoutError) as e:
        print(f"Could not connect to MongoDB at {settings.mongodb_uri}: {e}", file=sys.stderr)
        return 1

    videos = client[settings.mongodb_db_name][VIDEOS_COLLECTION]
    try:
        if args.clean:
            deleted = videos.delete_many({"user_id": user_id}).deleted_count
            print(f"Deleted {deleted} existing video(s)")

        created = []
        for i in range(args.count):
            video = Video(user_id=user_id, title=SAMPLE_TITLES[i % len(SAMPLE_TITLES)])
            videos.insert_one(video.to_document())
            created.append(video)
    except PyMongoError as e:
        print(f"Failed to write test data: {e}", file=sys.stderr)
        return 1
    finally:
        client.close()

    print(f"User id: {user_id}")
    for video in created:
        print(f"Video:   {video.id}  {video.title}")
    print(f"Token:   {create_access_token(user_id, settings)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
