"""auth/ -- Member and admin account lifecycle for CampaignHub.

Layer rule: auth/ imports from core/ and storage/ plus third-party libraries.
It does NOT import from api/, taxonomy/, sitesettings/, or cache/.
api/ imports from auth/, not the other way around.
"""
