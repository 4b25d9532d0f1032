# Gradient de la heatmap : positions (t dans [0,1]) et couleurs RGB 0-255.
# Quatre segments linéaires : bleu -> cyan -> jaune -> orange -> rouge.
HEATMAP_GRADIENT_STOPS = (
    (0.00, (0, 0, 255)),
    (0.25, (0, 255, 255)),
    (0.50, (255, 255, 0)),
    (0.75, (255, 128, 0)),
    (1.00, (255, 0, 0)),
)

# Taille de la LUT exportée vers les vues (format (N,3) comme les colormaps Omniscan)
HEATMAP_LUT_SIZE = 256

# Opacité par défaut de l'overlay heatmap (0-1)
DEFAULT_HEATMAP_OPACITY = 0.5

# Cadence de polling du worker heatmap (ms). Indépendante de la vitesse de calcul.
HEATMAP_POLL_INTERVAL_MS = 100

# Délai max (s) pour rejoindre un worker annulé lors d'un arrêt applicatif
HEATMAP_JOIN_TIMEOUT_S = 30.0

# Taille (pixels XY) des buckets de l'index de requête par point
POINT_QUERY_BUCKET_SIZE = 16

# Bornes par slice : (min_x, max_x, min_y, max_y)
EMPTY_SLICE_BOUNDS = (-1, -1, -1, -1)
BOUNDS_MIN_SENTINEL = 2**62
