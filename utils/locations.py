from typing import List, Optional

# One named location per slot id
PARKING_LOCATIONS = [
    {"id": 1, "name": "Downtown Mall Parking", "lat": 28.6139, "lng": 77.209, "address": "Central Delhi"},
    {"id": 2, "name": "Metro Station Parking", "lat": 28.6245, "lng": 77.2217, "address": "Kasturba Nagar"},
    {"id": 3, "name": "Airport Parking", "lat": 28.5721, "lng": 77.1884, "address": "Near T3"},
    {"id": 4, "name": "Hospital Parking", "lat": 28.6353, "lng": 77.2245, "address": "Medical District"},
    {"id": 5, "name": "Shopping Complex", "lat": 28.6129, "lng": 77.2295, "address": "Commercial Hub"},
    {"id": 6, "name": "Tech Park Parking", "lat": 28.5941, "lng": 77.1521, "address": "IT Corridor"},
    {"id": 7, "name": "University Parking", "lat": 28.6355, "lng": 77.1994, "address": "Educational Zone"},
    {"id": 8, "name": "Railway Station", "lat": 28.5920, "lng": 77.2414, "address": "Transport Hub"},
    {"id": 9, "name": "Business District", "lat": 28.6047, "lng": 77.1827, "address": "Corporate Area"},
    {"id": 10, "name": "Entertainment Zone", "lat": 28.6335, "lng": 77.2197, "address": "Night Life Area"},
]

KM_PER_DEGREE = 111


def planar_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    # flat-earth approximation, good enough inside one city
    d_lat = lat2 - lat1
    d_lng = lng2 - lng1
    return round((d_lat * d_lat + d_lng * d_lng) ** 0.5 * KM_PER_DEGREE, 1)


def locations_with_availability(slots, lat: Optional[float] = None, lng: Optional[float] = None) -> List[dict]:
    free = {s.id for s in slots if not s.occupied}
    out = []
    for loc in PARKING_LOCATIONS:
        item = dict(loc, slotNumber=loc["id"], available=loc["id"] in free, distance=None)
        if lat is not None and lng is not None:
            item["distance"] = planar_distance_km(lat, lng, loc["lat"], loc["lng"])
        out.append(item)

    if lat is not None and lng is not None:
        out.sort(key=lambda item: item["distance"])
    return out
