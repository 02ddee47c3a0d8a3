# Serie A 2025/26: (name, three-letter code)
SERIE_A_TEAMS: list[tuple[str, str]] = [
    ("Atalanta", "ATA"),
    ("Bologna", "BOL"),
    ("Cagliari", "CAG"),
    ("Como", "COM"),
    ("Cremonese", "CRE"),
    ("Fiorentina", "FIO"),
    ("Genoa", "GEN"),
    ("Hellas Verona", "VER"),
    ("Inter", "INT"),
    ("Juventus", "JUV"),
    ("Lazio", "LAZ"),
    ("Lecce", "LEC"),
    ("Milan", "MIL"),
    ("Napoli", "NAP"),
    ("Parma", "PAR"),
    ("Pisa", "PIS"),
    ("Roma", "ROM"),
    ("Sassuolo", "SAS"),
    ("Torino", "TOR"),
    ("Udinese", "UDI"),
]
