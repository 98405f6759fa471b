"""
Directory Module
================
Mock doctor and hospital directory used for recommendations, booking
and detail lookups. There is no real provider database behind it.

Hospitals carry coordinates so the nearest ones can be ranked by
Haversine distance from the patient.
"""

from __future__ import annotations

import copy
import logging
import math
from typing import Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Mock doctors
# ---------------------------------------------------------------------------
_MOCK_DOCTORS: list[dict] = [
    {
        "id": "1",
        "name": "Dr. Sarah Johnson",
        "specialty": "Internal Medicine",
        "rating": 4.8,
        "experience": 12,
        "hospital": "City General Hospital",
        "address": "123 Medical Center Dr, City, ST 12345",
        "phone": "(555) 123-4567",
        "email": "sarah.johnson@citygeneral.com",
        "available_slots": [
            {"id": "1", "date": "2024-01-15", "time": "09:00 AM", "available": True},
            {"id": "2", "date": "2024-01-15", "time": "10:30 AM", "available": True},
            {"id": "3", "date": "2024-01-16", "time": "02:00 PM", "available": True},
        ],
        "languages": ["English", "Spanish"],
        "cost_info": {
            "consultation_fee": 150,
            "currency": "USD",
            "insurance_covered": True,
            "discounts": [
                {
                    "type": "first_visit",
                    "description": "First visit discount",
                    "amount": 20,
                    "is_percentage": True,
                },
            ],
            "estimated_total": 120,
            "payment_options": ["Insurance", "Credit Card", "Mobile Money"],
        },
    },
    {
        "id": "2",
        "name": "Dr. Michael Chen",
        "specialty": "Cardiology",
        "rating": 4.9,
        "experience": 15,
        "hospital": "Heart & Vascular Institute",
        "address": "456 Cardiac Blvd, City, ST 12345",
        "phone": "(555) 234-5678",
        "email": "michael.chen@heartinstitute.com",
        "available_slots": [
            {"id": "4", "date": "2024-01-17", "time": "11:00 AM", "available": True},
            {"id": "5", "date": "2024-01-18", "time": "03:30 PM", "available": True},
        ],
        "languages": ["English", "Mandarin"],
        "cost_info": {
            "consultation_fee": 250,
            "currency": "USD",
            "insurance_covered": True,
            "discounts": [],
            "estimated_total": 250,
            "payment_options": ["Insurance", "Credit Card"],
        },
    },
    {
        "id": "3",
        "name": "Dr. Emily Rodriguez",
        "specialty": "Dermatology",
        "rating": 4.7,
        "experience": 8,
        "hospital": "Skin Care Medical Center",
        "address": "789 Dermatology Way, City, ST 12345",
        "phone": "(555) 345-6789",
        "email": "emily.rodriguez@skincare.com",
        "available_slots": [
            {"id": "6", "date": "2024-01-16", "time": "01:00 PM", "available": True},
            {"id": "7", "date": "2024-01-19", "time": "09:30 AM", "available": False},
        ],
        "languages": ["English", "Spanish"],
        "cost_info": {
            "consultation_fee": 120,
            "currency": "USD",
            "insurance_covered": False,
            "discounts": [
                {
                    "type": "student",
                    "description": "Student discount",
                    "amount": 15,
                    "is_percentage": False,
                },
            ],
            "estimated_total": 105,
            "payment_options": ["Cash", "Mobile Money"],
        },
    },
]

# ---------------------------------------------------------------------------
# Mock hospitals
# ---------------------------------------------------------------------------
_MOCK_HOSPITALS: list[dict] = [
    {
        "id": "1",
        "name": "City General Hospital",
        "address": "123 Medical Center Dr, City, ST 12345",
        "phone": "(555) 123-4567",
        "rating": 4.6,
        "specialties": ["Emergency Care", "Internal Medicine", "Surgery", "Pediatrics"],
        "emergency_services": True,
        "distance": 2.3,
        "average_cost": 300,
        "accepted_insurance": ["NHIF", "AAR", "Jubilee"],
        "financial_assistance": {
            "available": True,
            "description": "Sliding-scale fees for low-income patients",
            "requirements": ["Proof of income", "National ID"],
        },
        "services": ["24/7 Emergency", "Laboratory", "Pharmacy"],
        "lat": -1.3005,
        "lon": 36.8073,
    },
    {
        "id": "2",
        "name": "Heart & Vascular Institute",
        "address": "456 Cardiac Blvd, City, ST 12345",
        "phone": "(555) 234-5678",
        "rating": 4.8,
        "specialties": ["Cardiology", "Cardiac Surgery", "Vascular Surgery"],
        "emergency_services": False,
        "distance": 3.1,
        "average_cost": 650,
        "accepted_insurance": ["AAR", "Jubilee"],
        "financial_assistance": {
            "available": False,
            "description": "",
            "requirements": [],
        },
        "services": ["Cardiac Imaging", "Cath Lab", "Rehabilitation"],
        "lat": -1.2621,
        "lon": 36.8025,
    },
    {
        "id": "3",
        "name": "Regional Medical Center",
        "address": "321 Healthcare Ave, City, ST 12345",
        "phone": "(555) 456-7890",
        "rating": 4.5,
        "specialties": ["Emergency Care", "Trauma", "Orthopedics", "Neurology"],
        "emergency_services": True,
        "distance": 1.8,
        "average_cost": 400,
        "accepted_insurance": ["NHIF"],
        "financial_assistance": {
            "available": True,
            "description": "Government-subsidised emergency care",
            "requirements": ["NHIF card"],
        },
        "services": ["Trauma Unit", "Imaging", "Physiotherapy"],
        "lat": -1.2864,
        "lon": 36.8172,
    },
]


def get_mock_doctors() -> list[dict]:
    return copy.deepcopy(_MOCK_DOCTORS)


def get_mock_hospitals() -> list[dict]:
    return copy.deepcopy(_MOCK_HOSPITALS)


def get_doctor_by_id(doctor_id: str) -> Optional[dict]:
    for doctor in _MOCK_DOCTORS:
        if doctor["id"] == doctor_id:
            return copy.deepcopy(doctor)
    return None


def get_hospital_by_id(hospital_id: str) -> Optional[dict]:
    for hospital in _MOCK_HOSPITALS:
        if hospital["id"] == hospital_id:
            return copy.deepcopy(hospital)
    return None


def available_slots(doctor_id: str) -> list[dict]:
    """Open appointment slots for a doctor (empty for unknown doctors)."""
    doctor = get_doctor_by_id(doctor_id)
    if doctor is None:
        return []
    return [slot for slot in doctor["available_slots"] if slot.get("available")]


def estimate_consultation_cost(doctor: dict) -> float:
    """Apply the doctor's discounts to the consultation fee.

    Percentage discounts are taken off the base fee; flat discounts are
    subtracted as-is. The total never drops below zero.
    """
    cost_info = doctor.get("cost_info") or {}
    fee = float(cost_info.get("consultation_fee", 0))
    total = fee
    for discount in cost_info.get("discounts", []):
        amount = float(discount.get("amount", 0))
        if discount.get("is_percentage"):
            total -= fee * amount / 100
        else:
            total -= amount
    return round(max(0.0, total), 2)


def find_nearest_hospitals(
    patient_lat: float,
    patient_lon: float,
    count: int = 3,
    emergency_only: bool = False,
) -> list[dict]:
    """Rank directory hospitals by straight-line distance from the patient.

    Args:
        patient_lat: Patient latitude.
        patient_lon: Patient longitude.
        count: Number of hospitals to return.
        emergency_only: Only include hospitals with emergency services.

    Returns:
        Hospital dicts (nearest first) with ``distance`` in kilometres.
    """
    scored: list[dict] = []
    for hospital in get_mock_hospitals():
        if emergency_only and not hospital.get("emergency_services"):
            continue
        hospital["distance"] = round(
            haversine_distance(patient_lat, patient_lon, hospital["lat"], hospital["lon"]), 1
        )
        scored.append(hospital)

    scored.sort(key=lambda h: h["distance"])
    nearest = scored[:count]
    logger.info(
        "Directory search: %d nearest hospitals (closest: %s).",
        len(nearest),
        nearest[0]["name"] if nearest else "N/A",
    )
    return nearest


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two GPS points in kilometres."""
    R = 6371  # Earth radius in km
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.asin(math.sqrt(a))
    return R * c
