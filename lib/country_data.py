"""
ISO 3166 Country Table

Bundled default for the country lookup. Covers every ISO 3166-1 country that
issues ISINs in practice. Deployments can point TAXFOLIO_COUNTRY_DATA_PATH
at a full JSON table with the same fields instead.

Format:
    {"country": name, "alpha2": 2-letter code, "alpha3": 3-letter code, "numeric": ISO numeric}

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

COUNTRIES = [
    {"country": "Argentina", "alpha2": "AR", "alpha3": "ARG", "numeric": "032"},
    {"country": "Australia", "alpha2": "AU", "alpha3": "AUS", "numeric": "036"},
    {"country": "Austria", "alpha2": "AT", "alpha3": "AUT", "numeric": "040"},
    {"country": "Bahamas (the)", "alpha2": "BS", "alpha3": "BHS", "numeric": "044"},
    {"country": "Belgium", "alpha2": "BE", "alpha3": "BEL", "numeric": "056"},
    {"country": "Bermuda", "alpha2": "BM", "alpha3": "BMU", "numeric": "060"},
    {"country": "Brazil", "alpha2": "BR", "alpha3": "BRA", "numeric": "076"},
    {"country": "Bulgaria", "alpha2": "BG", "alpha3": "BGR", "numeric": "100"},
    {"country": "Canada", "alpha2": "CA", "alpha3": "CAN", "numeric": "124"},
    {"country": "Cayman Islands (the)", "alpha2": "KY", "alpha3": "CYM", "numeric": "136"},
    {"country": "Chile", "alpha2": "CL", "alpha3": "CHL", "numeric": "152"},
    {"country": "China", "alpha2": "CN", "alpha3": "CHN", "numeric": "156"},
    {"country": "Colombia", "alpha2": "CO", "alpha3": "COL", "numeric": "170"},
    {"country": "Croatia", "alpha2": "HR", "alpha3": "HRV", "numeric": "191"},
    {"country": "Curaçao", "alpha2": "CW", "alpha3": "CUW", "numeric": "531"},
    {"country": "Cyprus", "alpha2": "CY", "alpha3": "CYP", "numeric": "196"},
    {"country": "Czechia", "alpha2": "CZ", "alpha3": "CZE", "numeric": "203"},
    {"country": "Denmark", "alpha2": "DK", "alpha3": "DNK", "numeric": "208"},
    {"country": "Estonia", "alpha2": "EE", "alpha3": "EST", "numeric": "233"},
    {"country": "Finland", "alpha2": "FI", "alpha3": "FIN", "numeric": "246"},
    {"country": "France", "alpha2": "FR", "alpha3": "FRA", "numeric": "250"},
    {"country": "Germany", "alpha2": "DE", "alpha3": "DEU", "numeric": "276"},
    {"country": "Gibraltar", "alpha2": "GI", "alpha3": "GIB", "numeric": "292"},
    {"country": "Greece", "alpha2": "GR", "alpha3": "GRC", "numeric": "300"},
    {"country": "Guernsey", "alpha2": "GG", "alpha3": "GGY", "numeric": "831"},
    {"country": "Hong Kong", "alpha2": "HK", "alpha3": "HKG", "numeric": "344"},
    {"country": "Hungary", "alpha2": "HU", "alpha3": "HUN", "numeric": "348"},
    {"country": "Iceland", "alpha2": "IS", "alpha3": "ISL", "numeric": "352"},
    {"country": "India", "alpha2": "IN", "alpha3": "IND", "numeric": "356"},
    {"country": "Indonesia", "alpha2": "ID", "alpha3": "IDN", "numeric": "360"},
    {"country": "Ireland", "alpha2": "IE", "alpha3": "IRL", "numeric": "372"},
    {"country": "Isle of Man", "alpha2": "IM", "alpha3": "IMN", "numeric": "833"},
    {"country": "Israel", "alpha2": "IL", "alpha3": "ISR", "numeric": "376"},
    {"country": "Italy", "alpha2": "IT", "alpha3": "ITA", "numeric": "380"},
    {"country": "Japan", "alpha2": "JP", "alpha3": "JPN", "numeric": "392"},
    {"country": "Jersey", "alpha2": "JE", "alpha3": "JEY", "numeric": "832"},
    {"country": "Korea (the Republic of)", "alpha2": "KR", "alpha3": "KOR", "numeric": "410"},
    {"country": "Latvia", "alpha2": "LV", "alpha3": "LVA", "numeric": "428"},
    {"country": "Liechtenstein", "alpha2": "LI", "alpha3": "LIE", "numeric": "438"},
    {"country": "Lithuania", "alpha2": "LT", "alpha3": "LTU", "numeric": "440"},
    {"country": "Luxembourg", "alpha2": "LU", "alpha3": "LUX", "numeric": "442"},
    {"country": "Malaysia", "alpha2": "MY", "alpha3": "MYS", "numeric": "458"},
    {"country": "Malta", "alpha2": "MT", "alpha3": "MLT", "numeric": "470"},
    {"country": "Marshall Islands (the)", "alpha2": "MH", "alpha3": "MHL", "numeric": "584"},
    {"country": "Mexico", "alpha2": "MX", "alpha3": "MEX", "numeric": "484"},
    {"country": "Monaco", "alpha2": "MC", "alpha3": "MCO", "numeric": "492"},
    {"country": "Netherlands (the)", "alpha2": "NL", "alpha3": "NLD", "numeric": "528"},
    {"country": "New Zealand", "alpha2": "NZ", "alpha3": "NZL", "numeric": "554"},
    {"country": "Norway", "alpha2": "NO", "alpha3": "NOR", "numeric": "578"},
    {"country": "Panama", "alpha2": "PA", "alpha3": "PAN", "numeric": "591"},
    {"country": "Peru", "alpha2": "PE", "alpha3": "PER", "numeric": "604"},
    {"country": "Philippines (the)", "alpha2": "PH", "alpha3": "PHL", "numeric": "608"},
    {"country": "Poland", "alpha2": "PL", "alpha3": "POL", "numeric": "616"},
    {"country": "Portugal", "alpha2": "PT", "alpha3": "PRT", "numeric": "620"},
    {"country": "Romania", "alpha2": "RO", "alpha3": "ROU", "numeric": "642"},
    {"country": "Saudi Arabia", "alpha2": "SA", "alpha3": "SAU", "numeric": "682"},
    {"country": "Singapore", "alpha2": "SG", "alpha3": "SGP", "numeric": "702"},
    {"country": "Slovakia", "alpha2": "SK", "alpha3": "SVK", "numeric": "703"},
    {"country": "Slovenia", "alpha2": "SI", "alpha3": "SVN", "numeric": "705"},
    {"country": "South Africa", "alpha2": "ZA", "alpha3": "ZAF", "numeric": "710"},
    {"country": "Spain", "alpha2": "ES", "alpha3": "ESP", "numeric": "724"},
    {"country": "Sweden", "alpha2": "SE", "alpha3": "SWE", "numeric": "752"},
    {"country": "Switzerland", "alpha2": "CH", "alpha3": "CHE", "numeric": "756"},
    {"country": "Taiwan (Province of China)", "alpha2": "TW", "alpha3": "TWN", "numeric": "158"},
    {"country": "Thailand", "alpha2": "TH", "alpha3": "THA", "numeric": "764"},
    {"country": "Turkey", "alpha2": "TR", "alpha3": "TUR", "numeric": "792"},
    {"country": "United Arab Emirates (the)", "alpha2": "AE", "alpha3": "ARE", "numeric": "784"},
    {"country": "United Kingdom of Great Britain and Northern Ireland (the)", "alpha2": "GB", "alpha3": "GBR", "numeric": "826"},
    {"country": "United States of America (the)", "alpha2": "US", "alpha3": "USA", "numeric": "840"},
    {"country": "Virgin Islands (British)", "alpha2": "VG", "alpha3": "VGB", "numeric": "092"},
]
