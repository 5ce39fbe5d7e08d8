"""
etl/mappers.py
Lookup tables from the internal bulletin taxonomy to GTFS-RT enums.
A category or impact missing from a table falls back to the UNKNOWN value,
so new internal values never break translation.
"""

from google.transit import gtfs_realtime_pb2

from models.bulletin import Category, Impact, Priority

Alert = gtfs_realtime_pb2.Alert

# ─────────────────────────────────────────
# CATEGORY → CAUSE
# ─────────────────────────────────────────
CAUSE_MAP = {
    Category.STRIKE:                Alert.STRIKE,

    Category.VEHICLE_OFF_THE_ROAD:  Alert.ACCIDENT,
    Category.TRAFFIC_ACCIDENT:      Alert.ACCIDENT,
    Category.ACCIDENT:              Alert.ACCIDENT,

    Category.ITS_SYSTEM_ERROR:      Alert.TECHNICAL_PROBLEM,
    Category.SWITCH_FAILURE:        Alert.TECHNICAL_PROBLEM,
    Category.TECHNICAL_FAILURE:     Alert.TECHNICAL_PROBLEM,
    Category.VEHICLE_BREAKDOWN:     Alert.TECHNICAL_PROBLEM,
    Category.POWER_FAILURE:         Alert.TECHNICAL_PROBLEM,
    Category.VEHICLE_DEFICIT:       Alert.TECHNICAL_PROBLEM,

    Category.SEIZURE:               Alert.MEDICAL_EMERGENCY,
    Category.MEDICAL_INCIDENT:      Alert.MEDICAL_EMERGENCY,

    Category.WEATHER:               Alert.WEATHER,
    Category.WEATHER_CONDITIONS:    Alert.WEATHER,

    Category.ROAD_MAINTENANCE:      Alert.MAINTENANCE,
    Category.TRACK_MAINTENANCE:     Alert.MAINTENANCE,

    Category.ROAD_CLOSED:           Alert.CONSTRUCTION,
    Category.ROAD_TRENCH:           Alert.CONSTRUCTION,

    Category.ASSAULT:               Alert.POLICE_ACTIVITY,

    Category.OTHER_DRIVER_ERROR:    Alert.OTHER_CAUSE,
    Category.TOO_MANY_PASSENGERS:   Alert.OTHER_CAUSE,
    Category.MISPARKED_VEHICLE:     Alert.OTHER_CAUSE,
    Category.TEST:                  Alert.OTHER_CAUSE,
    Category.STATE_VISIT:           Alert.OTHER_CAUSE,
    Category.TRACK_BLOCKED:         Alert.OTHER_CAUSE,
    Category.EARLIER_DISRUPTION:    Alert.OTHER_CAUSE,
    Category.OTHER:                 Alert.OTHER_CAUSE,
    Category.NO_TRAFFIC_DISRUPTION: Alert.OTHER_CAUSE,
    Category.TRAFFIC_JAM:           Alert.OTHER_CAUSE,
    Category.PUBLIC_EVENT:          Alert.OTHER_CAUSE,
    Category.STAFF_DEFICIT:         Alert.OTHER_CAUSE,
    Category.DISTURBANCE:           Alert.OTHER_CAUSE,
}

# ─────────────────────────────────────────
# IMPACT → EFFECT
# ─────────────────────────────────────────
EFFECT_MAP = {
    Impact.CANCELLED:                    Alert.NO_SERVICE,
    Impact.DELAYED:                      Alert.SIGNIFICANT_DELAYS,
    Impact.IRREGULAR_DEPARTURES:         Alert.SIGNIFICANT_DELAYS,
    Impact.DEVIATING_SCHEDULE:           Alert.MODIFIED_SERVICE,
    Impact.POSSIBLE_DEVIATIONS:          Alert.MODIFIED_SERVICE,
    Impact.DISRUPTION_ROUTE:             Alert.DETOUR,
    Impact.POSSIBLY_DELAYED:             Alert.OTHER_EFFECT,
    Impact.VENDING_MACHINE_OUT_OF_ORDER: Alert.OTHER_EFFECT,
    Impact.RETURNING_TO_NORMAL:          Alert.OTHER_EFFECT,
    Impact.OTHER:                        Alert.OTHER_EFFECT,
    Impact.REDUCED_TRANSPORT:            Alert.REDUCED_SERVICE,
    Impact.NO_TRAFFIC_IMPACT:            Alert.NO_EFFECT,
}

# ─────────────────────────────────────────
# PRIORITY → SEVERITY LEVEL
# ─────────────────────────────────────────
SEVERITY_MAP = {
    Priority.INFO:    Alert.INFO,
    Priority.WARNING: Alert.WARNING,
    Priority.SEVERE:  Alert.SEVERE,
}


def to_gtfs_cause(category) -> int:
    return CAUSE_MAP.get(category, Alert.UNKNOWN_CAUSE)


def to_gtfs_effect(impact) -> int:
    return EFFECT_MAP.get(impact, Alert.UNKNOWN_EFFECT)


def to_gtfs_severity_level(priority):
    """SeverityLevel for the priority, or None when no severity should be set."""
    return SEVERITY_MAP.get(priority)
