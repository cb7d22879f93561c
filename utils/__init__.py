# Utils package - scheduling, OTP delivery, logging and configuration helpers
