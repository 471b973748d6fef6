"""Version Watch Deployer (VWD).

Single-node deployer that:
 - reads the published version marker of each watched application
 - syncs the application's compose manifest repository on change
 - brings the compose project up with the new version as TAG

The implementation is intentionally small so it can be audited and explained.
"""
