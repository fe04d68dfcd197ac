# giveaway/core/regions.py
"""
Region lookup tables used to build mug series codes.

Keys are normalised names (lowercase, single spaces). Region codes follow
the Indian vehicle-registration prefixes; subregion codes are the RTO
numbers of the main office in each district.
"""

STATE_CODES: dict[str, str] = {
    "andaman and nicobar islands": "AN",
    "andhra pradesh": "AP",
    "arunachal pradesh": "AR",
    "assam": "AS",
    "bihar": "BR",
    "chandigarh": "CH",
    "chhattisgarh": "CG",
    "dadra and nagar haveli and daman and diu": "DD",
    "delhi": "DL",
    "nct of delhi": "DL",
    "new delhi": "DL",
    "goa": "GA",
    "gujarat": "GJ",
    "haryana": "HR",
    "himachal pradesh": "HP",
    "jammu and kashmir": "JK",
    "jharkhand": "JH",
    "karnataka": "KA",
    "kerala": "KL",
    "ladakh": "LA",
    "lakshadweep": "LD",
    "madhya pradesh": "MP",
    "maharashtra": "MH",
    "manipur": "MN",
    "meghalaya": "ML",
    "mizoram": "MZ",
    "nagaland": "NL",
    "odisha": "OD",
    "orissa": "OD",
    "puducherry": "PY",
    "pondicherry": "PY",
    "punjab": "PB",
    "rajasthan": "RJ",
    "sikkim": "SK",
    "tamil nadu": "TN",
    "tamilnadu": "TN",
    "telangana": "TS",
    "tripura": "TR",
    "uttar pradesh": "UP",
    "uttarakhand": "UK",
    "uttaranchal": "UK",
    "west bengal": "WB",
}

DISTRICT_CODES: dict[str, dict[str, str]] = {
    "TN": {
        "chennai": "01",
        "chengalpattu": "19",
        "tiruvallur": "20",
        "kanchipuram": "21",
        "vellore": "23",
        "krishnagiri": "24",
        "tiruvannamalai": "25",
        "namakkal": "28",
        "dharmapuri": "29",
        "salem": "30",
        "cuddalore": "31",
        "villupuram": "32",
        "erode": "33",
        "coimbatore": "37",
        "tiruppur": "39",
        "nilgiris": "43",
        "tiruchirappalli": "45",
        "trichy": "45",
        "perambalur": "46",
        "karur": "47",
        "thanjavur": "49",
        "tiruvarur": "50",
        "nagapattinam": "51",
        "pudukkottai": "55",
        "dindigul": "57",
        "madurai": "58",
        "theni": "60",
        "ariyalur": "61",
        "sivaganga": "63",
        "ramanathapuram": "65",
        "virudhunagar": "67",
        "thoothukudi": "69",
        "tirunelveli": "72",
        "kanyakumari": "74",
    },
    "KL": {
        "thiruvananthapuram": "01",
        "kollam": "02",
        "pathanamthitta": "03",
        "alappuzha": "04",
        "kottayam": "05",
        "idukki": "06",
        "ernakulam": "07",
        "thrissur": "08",
        "palakkad": "09",
        "malappuram": "10",
        "kozhikode": "11",
        "wayanad": "12",
        "kannur": "13",
        "kasaragod": "14",
    },
    "KA": {
        "bengaluru": "01",
        "bangalore": "01",
        "tumakuru": "06",
        "kolar": "07",
        "mysuru": "09",
        "mysore": "09",
        "mandya": "11",
        "hassan": "13",
        "shivamogga": "14",
        "dakshina kannada": "19",
        "udupi": "20",
        "belagavi": "22",
        "dharwad": "25",
        "kalaburagi": "32",
        "ballari": "34",
    },
    "MH": {
        "mumbai": "01",
        "thane": "04",
        "kolhapur": "09",
        "sangli": "10",
        "satara": "11",
        "pune": "12",
        "solapur": "13",
        "nashik": "15",
        "aurangabad": "20",
        "nagpur": "31",
    },
    "AP": {
        "chittoor": "03",
        "guntur": "07",
        "krishna": "16",
        "nellore": "26",
        "visakhapatnam": "31",
    },
    "TS": {
        "warangal": "03",
        "rangareddy": "07",
        "hyderabad": "09",
    },
    "DL": {
        "new delhi": "01",
        "north delhi": "02",
        "south delhi": "03",
        "west delhi": "04",
    },
    "PY": {
        "puducherry": "01",
        "karaikal": "02",
        "mahe": "03",
        "yanam": "04",
    },
}
