"""
Directory Tests
===============
Run with: python -m pytest tests/test_directory.py -v
"""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from wemacare import records
from wemacare.directory import (
    available_slots,
    estimate_consultation_cost,
    find_nearest_hospitals,
    get_doctor_by_id,
    get_hospital_by_id,
    get_mock_doctors,
    haversine_distance,
)


class TestDoctors(unittest.TestCase):

    def test_lookup(self):
        self.assertEqual(get_doctor_by_id("2")["specialty"], "Cardiology")
        self.assertIsNone(get_doctor_by_id("42"))
        self.assertEqual(get_hospital_by_id("3")["name"], "Regional Medical Center")

    def test_returned_records_are_copies(self):
        get_mock_doctors()[0]["name"] = "Changed"
        self.assertEqual(get_doctor_by_id("1")["name"], "Dr. Sarah Johnson")

    def test_available_slots_skip_booked(self):
        self.assertEqual([s["id"] for s in available_slots("3")], ["6"])
        self.assertEqual(available_slots("42"), [])

    def test_percentage_discount(self):
        self.assertEqual(estimate_consultation_cost(get_doctor_by_id("1")), 120.0)

    def test_no_discount(self):
        self.assertEqual(estimate_consultation_cost(get_doctor_by_id("2")), 250.0)

    def test_flat_discount(self):
        self.assertEqual(estimate_consultation_cost(get_doctor_by_id("3")), 105.0)

    def test_cost_never_negative(self):
        doctor = {
            "cost_info": {
                "consultation_fee": 10,
                "discounts": [{"amount": 50, "is_percentage": False}],
            }
        }
        self.assertEqual(estimate_consultation_cost(doctor), 0.0)


class TestNearestHospitals(unittest.TestCase):

    def test_haversine_same_point(self):
        self.assertAlmostEqual(haversine_distance(-1.28, 36.82, -1.28, 36.82), 0.0)

    def test_haversine_known_distance(self):
        # Nairobi to Mombasa is roughly 440 km in a straight line.
        distance = haversine_distance(-1.2921, 36.8219, -4.0435, 39.6682)
        self.assertTrue(420 < distance < 460)

    def test_sorted_nearest_first(self):
        hospitals = find_nearest_hospitals(-1.2870, 36.8170)
        self.assertEqual(hospitals[0]["id"], "3")
        distances = [h["distance"] for h in hospitals]
        self.assertEqual(distances, sorted(distances))

    def test_emergency_only(self):
        hospitals = find_nearest_hospitals(-1.2621, 36.8025, count=5, emergency_only=True)
        self.assertNotIn("2", [h["id"] for h in hospitals])
        self.assertEqual(len(hospitals), 2)


class TestRecords(unittest.TestCase):

    def test_symptom_type_validated(self):
        with self.assertRaises(ValueError):
            records.create_symptom("Rash", "video")

    def test_optional_symptom_fields(self):
        symptom = records.create_symptom("Rash", "image", image_uri="file:///rash.jpg")
        self.assertEqual(symptom["image_uri"], "file:///rash.jpg")
        self.assertNotIn("voice_uri", symptom)

    def test_appointment_starts_pending(self):
        appointment = records.create_appointment("1", "current-user", "2024-01-15", "09:00 AM")
        self.assertEqual(appointment["status"], "pending")

    def test_user_profile_defaults(self):
        user = records.create_user("a@b.c", "Amina", medical_profile={"blood_type": "O+"})
        profile = user["medical_profile"]
        self.assertEqual(profile["blood_type"], "O+")
        self.assertEqual(profile["smoking_status"], "never")
        self.assertEqual(profile["emergency_contact"]["name"], "")

    def test_message_type_validated(self):
        with self.assertRaises(ValueError):
            records.create_message("current-user", "1", "Hi", "video")


if __name__ == "__main__":
    unittest.main()
