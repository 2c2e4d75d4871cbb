class SettingBag(dict):
    """
    A recursive, auto-expanding dictionary used to assemble the JSON/YAML output.

    Accessing a missing key inserts and returns another ``SettingBag`` instead of
    raising ``KeyError``, so the output tree can be built without checking
    whether intermediate levels exist:

    >>> bag = SettingBag()
    >>> bag["shared"]["BetterFolders"] = {"name": "BetterFolders"}
    >>> bag
    {'shared': {'BetterFolders': {'name': 'BetterFolders'}}}

    ``to_plain()`` turns the bag back into ordinary nested dicts, which is what
    ``yaml.safe_dump`` expects.
    """

    def __missing__(self, key):
        self[key] = SettingBag()
        return self[key]

    def to_plain(self):
        return {
            key: value.to_plain() if isinstance(value, SettingBag) else value
            for key, value in self.items()
        }
