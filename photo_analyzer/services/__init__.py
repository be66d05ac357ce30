from pillow_heif import register_heif_opener

# Lets Pillow open HEIC/HEIF uploads (iPhone default format)
register_heif_opener()
