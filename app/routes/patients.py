from fastapi import APIRouter, HTTPException, Query, Request, status
from bson import ObjectId
from app.db import db
from app.models.patient import Pagination, PatientStats
from app.utils.query import (
    SEARCH_LIMIT,
    SEARCH_PROJECTION,
    STATS_PIPELINE,
    build_patient_filter,
    build_search_filter,
    pagination_meta,
    resolve_pagination,
    resolve_sort,
    summarize_stats,
)
from app.utils.uploads import UploadError, extract_picture, remove_file, save_picture
from app.utils.validators import (
    build_patient_create,
    build_patient_update,
    read_form_fields,
    validate_object_id,
)
from datetime import datetime
from typing import Optional
from fastapi.encoders import jsonable_encoder
import logging

router = APIRouter(
    prefix="",
    tags=["patients"],
    responses={404: {"description": "Not found"}}
)

logger = logging.getLogger(__name__)

def serialize_object_ids(data):
    """Convert every ObjectId inside a structure to its string form"""
    if isinstance(data, dict):
        return {k: serialize_object_ids(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [serialize_object_ids(v) for v in data]
    elif isinstance(data, ObjectId):
        return str(data)
    return data

def serialize_patient(patient):
    """Helper function to serialize patient data"""
    if not patient:
        return None

    patient_data = serialize_object_ids(dict(patient))

    for field in ("createdAt", "updatedAt"):
        if isinstance(patient_data.get(field), datetime):
            patient_data[field] = patient_data[field].isoformat()

    if "_id" in patient_data:
        patient_data["id"] = patient_data.pop("_id")

    return patient_data

def not_found():
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"success": False, "error": "Patient not found"}
    )

def upload_rejected(error: UploadError):
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"success": False, "error": str(error)}
    )

async def get_collection():
    if db.db is None:
        await db.connect()
    return db.patients

@router.get("/", response_model=dict)
async def get_patients(
        search: Optional[str] = None,
        diagnosis: Optional[str] = None,
        minAge: Optional[int] = None,
        maxAge: Optional[int] = None,
        limit: int = Query(50),
        page: int = Query(1),
        sortBy: str = "createdAt",
        sortOrder: str = "desc"
):
    try:
        patients = await get_collection()

        query = build_patient_filter(search, diagnosis, minAge, maxAge)
        limit_num, page_num, skip = resolve_pagination(limit, page)
        sort = resolve_sort(sortBy, sortOrder)

        cursor = patients.find(query).sort(sort).skip(skip).limit(limit_num)
        results = await cursor.to_list(length=limit_num)
        total = await patients.count_documents(query)

        return {
            "success": True,
            "data": jsonable_encoder([serialize_patient(p) for p in results]),
            "pagination": Pagination(**pagination_meta(total, limit_num, page_num)).model_dump(by_alias=True)
        }
    except Exception as e:
        logger.error(f"Error retrieving patients: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "error": f"Error retrieving patients: {str(e)}"}
        )

@router.get("/search")
async def search_patients(q: Optional[str] = None):
    query = build_search_filter(q)
    if query is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"success": False, "error": "Search query must be at least 2 characters long"}
        )
    try:
        patients = await get_collection()
        cursor = patients.find(query, SEARCH_PROJECTION).sort("name", 1).limit(SEARCH_LIMIT)
        results = await cursor.to_list(length=SEARCH_LIMIT)
        return jsonable_encoder([serialize_patient(p) for p in results])
    except Exception as e:
        logger.error(f"Error searching patients: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "error": f"Error searching patients: {str(e)}"}
        )

@router.get("/stats", response_model=dict)
async def get_stats():
    try:
        patients = await get_collection()
        groups = await patients.aggregate(STATS_PIPELINE).to_list(length=1)
        return PatientStats(**summarize_stats(groups)).model_dump(by_alias=True)
    except Exception as e:
        logger.error(f"Error retrieving statistics: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "error": f"Error retrieving statistics: {str(e)}"}
        )

@router.get("/{id}", response_model=dict)
async def get_patient(id: str):
    object_id = validate_object_id(id)
    try:
        patients = await get_collection()
        patient = await patients.find_one({"_id": object_id})
        if not patient:
            raise not_found()
        return jsonable_encoder(serialize_patient(patient))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error retrieving patient: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "error": f"Error retrieving patient: {str(e)}"}
        )

@router.post("/", status_code=status.HTTP_201_CREATED, response_model=dict)
async def create_patient(request: Request):
    form = await request.form()
    try:
        upload = extract_picture(form)
    except UploadError as e:
        raise upload_rejected(e)

    patient_data = build_patient_create(read_form_fields(form))

    picture_path = None
    try:
        if upload is not None:
            picture_path = await save_picture(upload)

        now = datetime.utcnow()
        patient_data["picture"] = picture_path
        patient_data["createdAt"] = now
        patient_data["updatedAt"] = now

        patients = await get_collection()
        result = await patients.insert_one(patient_data)
        created_patient = await patients.find_one({"_id": result.inserted_id})
        logger.info(f"Created patient {result.inserted_id}")

        return {
            "success": True,
            "message": "Patient created successfully",
            "data": jsonable_encoder(serialize_patient(created_patient))
        }
    except UploadError as e:
        raise upload_rejected(e)
    except Exception as e:
        logger.error(f"Error creating patient: {str(e)}")
        remove_file(picture_path, orphan=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "error": f"Error creating patient: {str(e)}"}
        )

@router.put("/{id}", response_model=dict)
async def update_patient(id: str, request: Request):
    object_id = validate_object_id(id)
    form = await request.form()
    try:
        upload = extract_picture(form)
    except UploadError as e:
        raise upload_rejected(e)

    try:
        patients = await get_collection()
        existing_patient = await patients.find_one({"_id": object_id})
    except Exception as e:
        logger.error(f"Error updating patient: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "error": f"Error updating patient: {str(e)}"}
        )
    if not existing_patient:
        raise not_found()

    update_data = build_patient_update(existing_patient, read_form_fields(form))

    picture_path = None
    try:
        if upload is not None:
            picture_path = await save_picture(upload)
            update_data["picture"] = picture_path

        update_data["updatedAt"] = datetime.utcnow()
        result = await patients.update_one({"_id": object_id}, {"$set": update_data})
        if result.matched_count == 0:
            raise not_found()

        updated_patient = await patients.find_one({"_id": object_id})
    except HTTPException:
        remove_file(picture_path, orphan=True)
        raise
    except UploadError as e:
        raise upload_rejected(e)
    except Exception as e:
        logger.error(f"Error updating patient: {str(e)}")
        remove_file(picture_path, orphan=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "error": f"Error updating patient: {str(e)}"}
        )

    # The new picture is referenced now, so the old one can go
    if picture_path and existing_patient.get("picture"):
        remove_file(existing_patient["picture"])

    return {
        "success": True,
        "message": "Patient updated successfully",
        "data": jsonable_encoder(serialize_patient(updated_patient))
    }

@router.delete("/{id}", response_model=dict)
async def delete_patient(id: str):
    object_id = validate_object_id(id)
    try:
        patients = await get_collection()
        patient = await patients.find_one({"_id": object_id})
        if not patient:
            raise not_found()

        result = await patients.delete_one({"_id": object_id})
        if result.deleted_count == 0:
            raise not_found()
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting patient: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "error": f"Error deleting patient: {str(e)}"}
        )

    remove_file(patient.get("picture"))
    logger.info(f"Deleted patient {id}")

    return {
        "success": True,
        "message": "Patient deleted successfully",
        "deletedId": id
    }

@router.patch("/{id}/picture", response_model=dict)
async def update_patient_picture(id: str, request: Request):
    object_id = validate_object_id(id)
    form = await request.form()
    try:
        upload = extract_picture(form)
    except UploadError as e:
        raise upload_rejected(e)

    if upload is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"success": False, "error": "No picture file provided"}
        )

    picture_path = None
    try:
        patients = await get_collection()
        patient = await patients.find_one({"_id": object_id})
        if not patient:
            raise not_found()

        picture_path = await save_picture(upload)
        result = await patients.update_one(
            {"_id": object_id},
            {"$set": {"picture": picture_path, "updatedAt": datetime.utcnow()}}
        )
        if result.matched_count == 0:
            raise not_found()
    except HTTPException:
        remove_file(picture_path, orphan=True)
        raise
    except UploadError as e:
        raise upload_rejected(e)
    except Exception as e:
        logger.error(f"Error updating picture: {str(e)}")
        remove_file(picture_path, orphan=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "error": f"Error updating picture: {str(e)}"}
        )

    remove_file(patient.get("picture"))

    return {
        "success": True,
        "message": "Patient picture updated successfully",
        "picture": picture_path
    }
