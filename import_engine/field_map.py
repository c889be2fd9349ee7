"""
import_engine.field_map - Column names with fixed meaning in an import file.

Coordinates and estado are lifted onto the ImportRow itself; the
technical id is system-generated.  None of these ever lands inside the
attribute mapping.
"""

import config

LATITUDE_COLUMN  = "latitude"
LONGITUDE_COLUMN = "longitude"
ESTADO_COLUMN    = "estado"

# Headers every import file must carry, whatever the schema says
BASE_REQUIRED_COLUMNS = (LATITUDE_COLUMN, LONGITUDE_COLUMN)

# Upper-cased column names kept out of the attribute mapping
RESERVED_COLUMNS = frozenset({
    "LATITUDE", "LONGITUDE", "ESTADO", "ID_TECNICO", "ID_TÉCNICO",
})

# Latitude cell marking the template's instruction row
EXAMPLE_ROW_LATITUDE = config.TEMPLATE_SENTINEL_LAT

NULL_LITERAL = "null"
