import os
import tempfile
import unittest

from locallabor.config import DEFAULT_IMAGE_URL, Settings, load_settings


class LoadSettingsTests(unittest.TestCase):
    def test_defaults(self):
        settings = load_settings(env={})
        self.assertEqual(settings, Settings())
        self.assertEqual(settings.default_image_url, DEFAULT_IMAGE_URL)
        self.assertFalse(settings.geocode_strict)
        self.assertEqual((settings.default_page_size, settings.max_page_size), (10, 100))

    def test_environment_values_are_coerced(self):
        settings = load_settings(
            env={
                "LABOR_GEOCODER": "opencage",
                "LABOR_GEOCODER_TIMEOUT": "2.5",
                "LABOR_GEOCODE_STRICT": "yes",
                "LABOR_DEFAULT_PAGE_SIZE": "25",
                "LABOR_UPLOAD_DIR": "/srv/uploads",
                "LABOR_MAX_IMAGE_BYTES": "1024",
            }
        )
        self.assertEqual(settings.geocoder, "opencage")
        self.assertEqual(settings.geocoder_timeout, 2.5)
        self.assertTrue(settings.geocode_strict)
        self.assertEqual(settings.default_page_size, 25)
        self.assertEqual(settings.upload_dir, "/srv/uploads")
        self.assertEqual(settings.max_image_bytes, 1024)

    def test_blank_environment_values_keep_defaults(self):
        self.assertEqual(load_settings(env={"LABOR_GEOCODER": "", "LABOR_MAX_PAGE_SIZE": ""}), Settings())

    def test_yaml_file_then_environment(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "labor.yaml")
            with open(path, "w", encoding="utf-8") as f:
                f.write("geocoder: disabled\ngeocode_strict: true\nmax_page_size: 50\nunknown_key: 1\n")

            from_file = load_settings(env={"LABOR_SETTINGS_FILE": path})
            self.assertEqual(from_file.geocoder, "disabled")
            self.assertTrue(from_file.geocode_strict)
            self.assertEqual(from_file.max_page_size, 50)

            overridden = load_settings(env={"LABOR_SETTINGS_FILE": path, "LABOR_GEOCODE_STRICT": "false"})
            self.assertFalse(overridden.geocode_strict)
            self.assertEqual(overridden.geocoder, "disabled")


if __name__ == "__main__":
    unittest.main()
