# geoplexer/models/interests.py

from typing import List

from geoplexer.models.schemas import Interest

# Always searched right after a fresh selection
DEFAULT_INTEREST = Interest(
    id="attractions",
    label="Attractions",
    query="top tourist attractions",
)

# Opt-in refinements, merged into the existing groups
OPTIONAL_INTERESTS: List[Interest] = [
    Interest(id="food", label="Food", query="top rated restaurants"),
    Interest(id="coffee", label="Coffee", query="top coffee shops"),
    Interest(id="museums", label="Museums", query="top museums"),
    Interest(id="parks", label="Parks", query="top parks"),
    Interest(id="landmarks", label="Landmarks", query="top landmarks"),
    Interest(id="shopping", label="Shopping", query="top shopping malls"),
    Interest(id="markets", label="Markets", query="top markets"),
    Interest(id="nightlife", label="Nightlife", query="top bars"),
    Interest(id="views", label="Views", query="top scenic viewpoints"),
]

NIGHTLIFE_INTEREST_ID = "nightlife"
SHOPPING_INTEREST_ID = "shopping"
